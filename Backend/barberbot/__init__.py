"""WhatsApp conversational booking bot for barbershops."""
