"""DB-API storage for companies, scoring models and company scores."""