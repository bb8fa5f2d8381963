"""
JobHarvest — planification, délégation et exécution de jobs de crawl.

Sous-systèmes:
- services.scheduling: timers de démarrage/arrêt + triggers cron récurrents
- services.delegator: exécution séquentielle des tools d'un job, persistance avec retry
- services.scraper: orchestration concurrente des requêtes de crawl par target
- services.persistence: historique des exécutions (SQLAlchemy)
"""

__version__ = "1.0.0"
