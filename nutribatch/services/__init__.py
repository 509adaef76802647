# Record stores and external generation clients
