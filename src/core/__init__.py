"""Core domain package for mockingbird.

Core contains segmentation, tokenization, the Markov model, corpus
synchronization and scheduling without any Telegram or storage-specific
code. Integrations plug in through the protocols in ``core.ports``.
"""
