"""Authentication flow tests for srpflow.

These tests drive AuthenticationFlow end to end:
- Password login, MFA, new password and custom challenges (test_auth_flow.py)
- Remembered devices and token refresh (test_device_flow.py)
- Login over HTTP against the stub service (test_stub_http.py)
- State machine properties under random input (test_flow_properties.py)
"""
