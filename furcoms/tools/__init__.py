"""Developer tools shipped with FurComs."""
