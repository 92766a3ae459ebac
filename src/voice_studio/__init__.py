"""Voice design and speech streaming backend."""
