"""Allow ``python -m origins_recommender``."""
from .cli import main

main()
