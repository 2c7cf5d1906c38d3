"""learnpath: course progress ledger and purchase settlement API."""
