"""Live knowledge pipeline.

Scraper - renders the live site state into one text artifact
Artifact store - resolves where the artifact lives and regenerates it when missing
Sync - replaces the previous live copy in the remote vector store with the new one
"""
