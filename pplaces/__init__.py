"""pplaces - find, summarize, clone and upload local git repositories."""

__version__ = "0.1.0"
