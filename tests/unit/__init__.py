# Unit tests
