"""
ArchPI - Arch Linux Post-Installation
Interactive post-installation setup for Arch Linux GNOME desktops
"""

__version__ = "3.0.0"
