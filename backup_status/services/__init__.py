"""External collaborators: IMAP retrieval, report rendering and SMTP delivery."""
