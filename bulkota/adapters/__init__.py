"""Adapters: HTTP install server, packager and URI openers."""
