"""Domain services: conversation directory, authorization, message store, broadcast."""
