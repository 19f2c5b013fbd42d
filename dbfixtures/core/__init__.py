"""dbfixtures core package.

Contains the dialect adapter base class, the value codec, the SQL builder,
the checksum cache, the integrity guards and the loader. Modules are
imported directly (``dbfixtures.core.loader``) because the models depend
on ``dbfixtures.core.config``.
"""
