"""RTDB Sweeper — retention sweeper for Firebase Realtime Database roots."""
