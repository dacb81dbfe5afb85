"""User accounts and the collaborators that persist them."""
