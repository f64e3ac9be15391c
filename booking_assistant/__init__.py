"""Multi-tenant booking assistant core"""
