"""Hardware stand-ins used by the test suite."""
