"""toolrelay command line interface."""
