import pymysql

# Let Django's MySQL backend run on PyMySQL in production
pymysql.install_as_MySQLdb()
