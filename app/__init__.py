"""
Voice Receptionist backend - Twilio webhooks, OpenAI replies, ElevenLabs speech.
"""
