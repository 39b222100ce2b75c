"""
Integrations with external providers: the pub/sub relay, scoped relay
tokens and Twilio.
"""
