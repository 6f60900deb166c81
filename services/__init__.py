"""Services package for backend application."""
