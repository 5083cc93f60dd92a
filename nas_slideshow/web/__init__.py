# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""Web API for the slideshow client."""
