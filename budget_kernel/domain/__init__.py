"""Pure domain layer: calendar, generator, lifecycle, progress.  Zero I/O."""
