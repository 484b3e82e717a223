"""eMarketer scheduler: fires the sync trigger on a fixed interval."""
