"""FlareCert internals.

.. warning:: This module is not part of the public API.

"""
