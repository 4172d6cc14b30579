"""PairChat: two-party messaging with real-time delivery."""
