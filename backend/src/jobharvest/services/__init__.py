"""
Services — couche métier JobHarvest.

Structure :
  - scheduling/   : Timers + triggers cron (APScheduler)
  - delegator/    : Exécution séquentielle des tools d'un job, persistance avec retry
  - scraper/      : Orchestration concurrente du crawl, registry des targets
  - persistence/  : Stockage des exécutions (SQLAlchemy ORM)
  - shutdown.py   : Arrêt propre du process
"""
