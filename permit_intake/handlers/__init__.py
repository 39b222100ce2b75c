"""
WebSocket message handlers for the Twilio media stream and the mobile live view.
"""
