"""KIMAAKI delivery — live order tracking and in-app chat over a hosted store."""
