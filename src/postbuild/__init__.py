"""postbuild - post-build HTML/CSS rewriting for statically generated sites."""

__version__ = "0.3.0"
