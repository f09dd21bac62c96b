"""On-chain protocol position stores."""
