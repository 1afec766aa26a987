"""vmtop - terminal dashboard for cloud VM instances."""

__version__ = "0.3.0"
