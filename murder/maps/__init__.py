"""Map data: spawn points loaded from CSV and the spawn provider built on them."""
