"""Receiver, parsers, servers and test client for the Carbon (Graphite) plaintext protocol."""