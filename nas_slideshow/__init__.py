# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
# NAS Slideshow - Photo slideshow backend for a Synology NAS
"""
NAS Slideshow samples random photos from a Synology NAS, downloads and
flattens them into a local directory, and serves them with capture date
and location metadata to a slideshow client.
"""

__version__ = "1.0.0"
