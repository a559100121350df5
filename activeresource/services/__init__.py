"""
Services for activeresource.

Concrete implementations of the collaborator interfaces in core.interfaces.
"""
