"""Migration files, loaded by path by :class:`ffblog.migrations.Migrator`."""
