"""Built-in CLI sub-commands for mtgcache.

* :mod:`~mtgcache.commands.fetch` -- ``fetch``, ``status`` and ``path``,
  registered directly on the root app.
* :mod:`~mtgcache.commands.config` -- the ``config`` sub-application for
  viewing and modifying global settings.
"""
