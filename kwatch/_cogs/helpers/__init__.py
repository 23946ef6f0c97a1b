"""
General-purpose helpers not related to the watching engine itself,
which are used to prepare and control the runtime environment.

Helpers do not depend on anything else in the package.
"""
