"""Domain logic shared by the server and the client worker."""
