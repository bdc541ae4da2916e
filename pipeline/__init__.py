"""
Page pipeline components.

1. ledger - ordered pages of a book, renumbering, crop writes
2. split - two-page spread detection and splitting
3. transcription - chained transcribe -> translate -> summarize per page
4. batch - sequential, cancellable runs of one action over many pages
5. export - plain-text export of a book's transcriptions and translations
"""
