"""Django project package for MessMass."""
