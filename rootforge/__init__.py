"""rootforge - builds pkginfo-described packages into a rootfs."""

__version__ = "0.1.0"
