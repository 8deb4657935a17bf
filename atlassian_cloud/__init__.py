"""Typed async bindings for the Atlassian Cloud REST APIs."""
