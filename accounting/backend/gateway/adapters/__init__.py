"""
Outbound adapters.

base defines the ChatProvider and MailTransport interfaces the services
depend on; openai_compatible and smtp_imap implement them.
"""
