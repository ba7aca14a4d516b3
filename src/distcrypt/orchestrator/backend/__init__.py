"""Local stand-ins for the external worker and master executables."""
