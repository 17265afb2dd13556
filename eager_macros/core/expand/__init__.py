"""Eager (call-by-value) expansion on top of a lazy (call-by-name) host.

The decode engine keeps its state as an explicit frame stack so that an
invocation can be handed to its expander and the replacement spliced back
into the exact position it came from.
"""
