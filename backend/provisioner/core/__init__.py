"""
Core infrastructure for the provisioner.

- database: MongoSession, a synchronous pymongo session with bounded timeouts
  and explicit admin/target database access
"""
