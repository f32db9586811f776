"""Performance monitoring and progress reporting."""
